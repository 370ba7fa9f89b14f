"""Water level monitoring service.

Ingests water-level telemetry, evaluates it against configured
thresholds and drives the pump state machine, the alert pipeline and
the realtime dashboard channel.
"""
