"""Voice conversation engine and speech I/O."""
