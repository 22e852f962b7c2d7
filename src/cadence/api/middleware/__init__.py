"""API middleware package: request ids and error mapping."""
