"""Pure domain layer of the credit kernel: records, values, clock, workflow types."""
