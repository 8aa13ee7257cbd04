"""EVM chain platform: web3.py connections and local private key signing."""
