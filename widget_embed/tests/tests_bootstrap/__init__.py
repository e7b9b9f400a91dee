"""End-to-end page tests through EmbedContext and render_page."""
