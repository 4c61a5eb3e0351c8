"""Blocklog: record gig-work blocks and see what they pay."""
