"""Error kinds and exceptions raised by economy components.

Code ranges:
  1xxx: Trade
  2xxx: Auction
  3xxx: Funds
  4xxx: Lookup / authorisation
  9xxx: Request
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_TRADE = "InvalidTrade"
    INELIGIBLE_PAIR = "IneligiblePair"
    INVALID_AUCTION = "InvalidAuction"
    AUCTION_NOT_ACTIVE = "AuctionNotActive"
    BID_TOO_LOW = "BidTooLow"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    NOT_FOUND = "NotFound"
    UNAUTHORIZED = "Unauthorized"
    INVALID_REQUEST = "InvalidRequest"


class EconomyError(Exception):
    """Base error for rejected economy operations."""

    def __init__(self, code: int, kind: ErrorKind, message: str) -> None:
        self.code = code
        self.kind = kind
        self.message = message
        super().__init__(message)


# --- 1xxx: Trade ---

class InvalidTradeError(EconomyError):
    def __init__(self, detail: str) -> None:
        super().__init__(1001, ErrorKind.INVALID_TRADE, f"Invalid trade: {detail}")


class IneligiblePairError(EconomyError):
    def __init__(self, detail: str) -> None:
        super().__init__(1002, ErrorKind.INELIGIBLE_PAIR, f"Players cannot trade: {detail}")


# --- 2xxx: Auction ---

class InvalidAuctionError(EconomyError):
    def __init__(self, detail: str) -> None:
        super().__init__(2001, ErrorKind.INVALID_AUCTION, f"Invalid auction: {detail}")


class AuctionNotActiveError(EconomyError):
    def __init__(self, auction_id: object, status: str) -> None:
        super().__init__(2002, ErrorKind.AUCTION_NOT_ACTIVE, f"Auction {auction_id} is not active ({status})")


class BidTooLowError(EconomyError):
    def __init__(self, amount: object, current_bid: object) -> None:
        super().__init__(2003, ErrorKind.BID_TOO_LOW, f"Bid {amount} must exceed current bid {current_bid}")


# --- 3xxx: Funds ---

class InsufficientFundsError(EconomyError):
    def __init__(self, player_id: str, detail: str) -> None:
        super().__init__(3001, ErrorKind.INSUFFICIENT_FUNDS, f"Insufficient funds for {player_id}: {detail}")


# --- 4xxx: Lookup / authorisation ---

class NotFoundError(EconomyError):
    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(4001, ErrorKind.NOT_FOUND, f"{entity} not found: {entity_id}")


class UnauthorizedError(EconomyError):
    def __init__(self, player_id: str, action: str) -> None:
        super().__init__(4003, ErrorKind.UNAUTHORIZED, f"Player {player_id} may not {action}")


# --- 9xxx: Request ---

class InvalidRequestError(EconomyError):
    def __init__(self, detail: str) -> None:
        super().__init__(9001, ErrorKind.INVALID_REQUEST, f"Invalid request: {detail}")
