"""HTTP surface for the coaching engine."""
