"""HTTP surface for the authorization handshake."""
