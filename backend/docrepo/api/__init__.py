"""HTTP surface for the document repository."""
