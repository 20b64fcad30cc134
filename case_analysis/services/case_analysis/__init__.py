"""Nine-step AI case analysis: workflow management, step execution and research helpers."""
