"""Application layer - response expectations, refund planning, checkout flows."""
