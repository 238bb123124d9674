"""
Public, network-wide parameters of the vlotto lottery.

These values are published by the lottery operator and shared by every
client that reads the ledger. Changing them changes which data is read.
"""

# Identity carrying the ledger payload
LEDGER_IDENTITY = "ledger.vlotto@"

# VDXF keys selecting content-map entries
VDXF_LEDGER_DATA = "iFVPmjN213NmfaiBhAkxAJWWGtcDEoXJcU"  # vlotto.ledger.data
VDXF_TICKET_FINALIZED_DATA = "iMzWvy5j4ciiMSBsEEVzfy66awLQ85b4GN"  # vlotto.ticket.finalizeddata
VDXF_DATA_DESCRIPTOR = "i4GC1YGEVD21afWudGoFJVdnfjJ5XWnCQv"  # data.type.object.datadescriptor

# Unsold / discarded tickets are sent here
GRAVEYARD_ADDRESSES = {
    "VRSCTEST": "RMzd5vMptsxxz1tWH2FeSdUgRSNgS4G52w",
    "VRSC": "RAXCjm9Z4RJWEmsNgo83B8JevTcJRt6Tj5",
}

TESTNET_CHAIN = "vrsctest"
MAINNET_CHAIN = "vrsc"

# Base58check version bytes
R_ADDRESS_VERSION = 60
I_ADDRESS_VERSION = 102

POLL_INTERVAL_S = 60.0

# Trailing characters stripped from the main identity when a ticket name
# does not resolve
TICKET_NAME_FALLBACK_ATTEMPTS = 3

DEFAULT_RPC_HOST = "127.0.0.1"
DEFAULT_RPC_PORT = 27486
