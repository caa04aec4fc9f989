"""Domain types shared by the store, decoder and controller."""
