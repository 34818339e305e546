"""
UI helper constants for clipcode.

Separates CSS from ui.py for cleaner organization.
"""

# ─────────────────────────────────────────────────────────────────────
# CSS
# ─────────────────────────────────────────────────────────────────────

CUSTOM_CSS = """
/* Narrow sidebar-style column */
#clipcode-panel {
    max-width: 720px;
    margin: 0 auto;
}

/* Response area keeps its height while streaming */
#clipcode-response {
    min-height: 240px;
    padding: 0.75rem;
    border: 1px solid var(--border-color-primary);
    border-radius: 8px;
}

#clipcode-status {
    font-size: 13px;
    opacity: 0.8;
}
"""
