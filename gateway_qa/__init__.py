"""QA harness for a hosted payment gateway's intent, status and refund APIs."""

__version__ = "0.1.0"
