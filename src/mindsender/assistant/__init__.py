"""Natural-language task assistant (four task tools over an OpenAI-compatible model)."""
