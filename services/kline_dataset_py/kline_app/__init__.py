"""HTTP application for the kline dataset builder."""
