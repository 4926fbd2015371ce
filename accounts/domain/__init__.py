"""Records, typed results and validation rules."""
