from .channel import ReadingChannel, ReadingMessage
from .simulator import SensorSimulator

__all__ = ["ReadingChannel", "ReadingMessage", "SensorSimulator"]
