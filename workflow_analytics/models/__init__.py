"""Record models consumed and metric models produced by the analytics engine."""
