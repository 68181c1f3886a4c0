from __future__ import annotations

# Contract function names (as they appear in contract-call operations)
REGISTER_FN = "register-username"
TRANSFER_FN = "transfer-username"
RELEASE_FN  = "release-username"

# Production deployment
DEFAULT_CONTRACT_ADDRESS = "SPZ2TS3SCXSX01ETASV9X0HNS3C9RZGXD94JKX3R"
DEFAULT_CONTRACT_NAME    = "username-registry-v2"

MAINNET_API_URL = "https://api.mainnet.hiro.so"
TESTNET_API_URL = "https://api.testnet.hiro.so"

# Username constraints enforced by the contract
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
