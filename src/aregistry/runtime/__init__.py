"""Resolution, translation and platform apply for registry deployments."""
