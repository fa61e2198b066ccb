"""FastAPI surface for starting, inspecting and controlling execution sessions."""
