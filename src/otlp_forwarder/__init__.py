"""
otlp-forwarder: Re-deliver OTLP telemetry captured as log lines.

Workloads write OpenTelemetry export requests to stdout wrapped in a JSON
envelope. The forwarder reads those lines from a log subscription, rebuilds
the export requests, compacts them and posts them to every configured
collector.
"""

__version__ = "0.1.0"
