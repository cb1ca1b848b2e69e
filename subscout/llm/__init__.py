"""LLM client helpers (Gemini via Vertex AI)."""
