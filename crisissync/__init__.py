"""CrisisSync - disaster incident reporting and dispatch."""
