"""clipcode - chat relay between a panel UI and a local Ollama server."""
