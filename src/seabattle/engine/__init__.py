"""Game-state engine: board model, fleet generation, shot resolution and match control."""
