"""Scenario families run by the live suite: intent, status and refund."""
