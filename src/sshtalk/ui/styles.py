"""CSS styles for the TUI.

Hides layout and styling decisions from the application logic.
The transcript viewport takes all the space the input bar leaves, with
a one-row gap between them.
"""

APP_CSS = """
Screen {
    layout: vertical;
    background: $background;
}

/* ============================================
   Transcript viewport
   ============================================ */
#viewport {
    height: 1fr;
    border: round $primary 60%;
    background: $surface;
    scrollbar-gutter: stable;
    margin-bottom: 1;

    &:focus-within {
        border: round $primary;
    }
}

#transcript {
    width: 100%;
    height: auto;
}

/* ============================================
   Log panel (hidden until toggled)
   ============================================ */
#debug-panel {
    height: 12;
    border: round $warning 60%;
    border-title-color: $warning;
    border-subtitle-color: $text-muted;
    background: $panel;
    margin-bottom: 1;
}

/* ============================================
   Input bar
   ============================================ */
#chat-input-bar {
    height: 3;
    border: round $border;
    background: $surface;

    &:focus-within {
        border: round $accent;
    }
}

#input-prompt {
    width: 2;
    height: 1;
    color: $accent;
}

#chat-input {
    width: 1fr;
    height: 1;
    border: none;
    padding: 0;
    background: $surface;

    &:focus {
        border: none;
    }
}
"""
