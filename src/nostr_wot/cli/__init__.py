"""nostr-wot command line interface."""
