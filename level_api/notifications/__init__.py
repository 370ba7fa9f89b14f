from .email_gateway import SmtpEmailGateway, is_valid_email
from .templates import EmailMessage, EmailTemplates

__all__ = ["SmtpEmailGateway", "is_valid_email", "EmailMessage", "EmailTemplates"]
