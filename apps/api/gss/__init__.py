"""GSS Admin — selector configuration backend for Gallery Security Selectors."""
