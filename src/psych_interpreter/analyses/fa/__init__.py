"""Factor analysis: factors are the interpreted components."""
