"""FluxHound test suite."""
