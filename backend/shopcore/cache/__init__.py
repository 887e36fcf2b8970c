"""Redis access for the guest cart session store."""
