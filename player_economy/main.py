"""CLI demo interface for the player economy."""

from decimal import Decimal, InvalidOperation
from typing import List, Optional
from uuid import UUID

from .currency import CurrencyAmount, CurrencyKind
from .facade import Economy, OperationResult
from .logconfig import configure_logging
from .persistence import JsonFileStore
from .player import PlayerRef
from .sample_data import SAMPLE_PLAYERS, create_sample_economy, sample_item
from .scheduler import ManualClock
from .search import SortOrder

HOUR_MS = 60 * 60 * 1000
DEFAULT_SNAPSHOT = "economy_snapshot.json"


def print_players(economy: Economy) -> None:
    """Print wallets, inventories and reputation of the sample players."""
    print("\n" + "=" * 60)
    print("PLAYERS")
    print("=" * 60)
    for player_id in SAMPLE_PLAYERS:
        tier = economy.reputation_tier(player_id)
        inventory = ", ".join(f"{qty}x {item}" for item, qty in economy.inventory(player_id).items())
        print(f"  {player_id:<6} {economy.balance(player_id).format():<16} "
              f"rep {economy.reputation(player_id):>7.2f} ({tier.name})")
        print(f"         items: {inventory or '(none)'}")
    print("=" * 60 + "\n")


def print_trades(economy: Economy) -> None:
    trades = economy.active_trades()
    print("\nOPEN TRADES:")
    if not trades:
        print("  (none)")
    for trade in trades:
        items = ", ".join(f"{i.quantity}x {i.item_id}" for i in trade.items)
        print(f"  {str(trade.trade_id)[:8]}  {trade.status.value:<9} "
              f"{trade.initiator.player_id} -> {trade.counterparty.player_id}: {items} "
              f"for {trade.currency.format()} [{trade.channel_id}]")
    print()


def print_auctions(economy: Economy) -> None:
    auctions = economy.auctions(active_only=True)
    now = economy.clock.now_ms()
    print("\nACTIVE AUCTIONS:")
    if not auctions:
        print("  (none)")
    for auction in auctions:
        bidder = auction.current_bidder.player_id if auction.current_bidder else "-"
        buyout = auction.buyout_price if auction.buyout_price is not None else "-"
        print(f"  {str(auction.auction_id)[:8]}  {auction.item.quantity}x {auction.item.item_id:<14} "
              f"bid {auction.current_bid} ({bidder}), buyout {buyout}, "
              f"{auction.time_left(now) // 1000}s left")
    print()


def print_prices(economy: Economy) -> None:
    print("\nMARKET PRICES:")
    print(f"  {'Item':<14} | {'Price':>10} | {'Base':>8} | {'Volume':>6} | Trend")
    print("  " + "-" * 52)
    for record in economy.market_prices().values():
        print(f"  {record.item_id:<14} | {record.current_price:>10.2f} | {record.base_price:>8} | "
              f"{record.volume:>6} | {record.trend.value}")
    print()


def print_result(result: OperationResult) -> None:
    if result.ok:
        print(f"OK: {result.value!r}")
    else:
        print(f"Rejected [{result.error.value} {result.code}]: {result.message}")


def save_snapshot(economy: Economy, path: str) -> None:
    JsonFileStore(path).save(economy.snapshot())
    print(f"Saved snapshot to {path}")


def load_snapshot(economy: Economy, path: str) -> None:
    state = JsonFileStore(path).load()
    if state is None:
        print(f"No snapshot at {path}")
        return
    result = economy.restore(state)
    if result.ok:
        print(f"Restored {result.value} trades from {path}")
    else:
        print_result(result)


def print_help() -> None:
    """Print help message."""
    print("""
Player Economy Demo - Commands:
  players                                 - Show wallets, items and reputation
  trades                                  - Show open trades
  auctions                                - Show active auctions
  prices                                  - Show market prices
  trade <from> <to> <item> <qty> <gold>   - Offer items for gold
  accept <trade> <player>                 - Accept a trade (counterparty)
  decline <trade> <player>                - Decline a trade (counterparty)
  cancel <trade> <player>                 - Cancel a trade (initiator)
  complete <trade>                        - Settle an accepted trade now
  list <seller> <item> <start> [buyout]   - Auction one item for an hour
  bid <auction> <player> <amount>         - Bid on an auction
  buyout <auction> <player>               - Buy an auction outright
  search <text> [sort]                    - Search trades and auctions
  wait <seconds>                          - Advance time and run timers
  save [path]                             - Save history, prices and reputation
  load [path]                             - Restore a saved snapshot
  help                                    - Show this help
  quit                                    - Exit

Trades and auctions are referenced by the first characters of their id.
Players: alice, bob, carol, dave.
""")


def _player(name: str) -> PlayerRef:
    player = SAMPLE_PLAYERS.get(name)
    if player is None:
        raise ValueError(f"Unknown player {name!r}")
    return player


def _resolve(prefix: str, ids: List[UUID]) -> UUID:
    matches = [i for i in ids if str(i).startswith(prefix)]
    if len(matches) != 1:
        raise ValueError(f"{prefix!r} matches {len(matches)} ids")
    return matches[0]


def _trade_id(economy: Economy, prefix: str) -> UUID:
    return _resolve(prefix, [t.trade_id for t in economy.active_trades()])


def _auction_id(economy: Economy, prefix: str) -> UUID:
    return _resolve(prefix, [a.auction_id for a in economy.auctions(active_only=True)])


def run_demo(economy: Optional[Economy] = None) -> None:
    """Run the interactive demo."""
    configure_logging("WARNING")

    economy = economy or create_sample_economy(clock=ManualClock())

    print("\nPlayer Economy Demo")
    print("Type 'help' for commands\n")

    while True:
        try:
            user_input = input("> ").strip()

            if not user_input:
                continue

            parts = user_input.split()
            command = parts[0].lower()

            if command == "quit":
                print("Goodbye!")
                break

            elif command == "help":
                print_help()

            elif command == "players":
                print_players(economy)

            elif command == "trades":
                print_trades(economy)

            elif command == "auctions":
                print_auctions(economy)

            elif command == "prices":
                print_prices(economy)

            elif command == "trade" and len(parts) == 6:
                result = economy.initiate_trade(
                    _player(parts[1]),
                    _player(parts[2]),
                    [sample_item(parts[3], int(parts[4]))],
                    CurrencyAmount.of(CurrencyKind.GOLD, Decimal(parts[5])),
                )
                print_result(result)

            elif command in ("accept", "decline", "cancel") and len(parts) == 3:
                trade_id = _trade_id(economy, parts[1])
                action = {
                    "accept": economy.accept_trade,
                    "decline": economy.decline_trade,
                    "cancel": economy.cancel_trade,
                }[command]
                print_result(action(trade_id, parts[2]))

            elif command == "complete" and len(parts) == 2:
                print_result(economy.complete_trade(_trade_id(economy, parts[1])))

            elif command == "list" and len(parts) in (4, 5):
                buyout = Decimal(parts[4]) if len(parts) == 5 else None
                result = economy.list_auction(
                    _player(parts[1]), sample_item(parts[2]), Decimal(parts[3]), HOUR_MS, "global", buyout
                )
                print_result(result)

            elif command == "bid" and len(parts) == 4:
                auction_id = _auction_id(economy, parts[1])
                print_result(economy.place_bid(auction_id, _player(parts[2]), Decimal(parts[3])))

            elif command == "buyout" and len(parts) == 3:
                print_result(economy.buyout(_auction_id(economy, parts[1]), _player(parts[2])))

            elif command == "search" and len(parts) in (2, 3):
                sort_by = SortOrder(parts[2]) if len(parts) == 3 else None
                result = economy.search(parts[1], sort_by=sort_by)
                for hit in result.value or []:
                    print(f"  {hit.kind:<7} {str(hit.entity_id)[:8]}  {hit.item.quantity}x {hit.item.item_id} "
                          f"@ {hit.price} by {hit.player_id}")
                if result.ok and not result.value:
                    print("  (no results)")

            elif command in ("save", "load") and len(parts) in (1, 2):
                path = parts[1] if len(parts) == 2 else economy.settings.snapshot_path or DEFAULT_SNAPSHOT
                if command == "save":
                    save_snapshot(economy, path)
                else:
                    load_snapshot(economy, path)

            elif command == "wait" and len(parts) == 2:
                if isinstance(economy.clock, ManualClock):
                    economy.clock.advance(int(Decimal(parts[1]) * 1000))
                summary = economy.tick()
                print(f"Timers fired: {summary.fired}, trades timed out: {summary.timed_out}, "
                      f"auctions closed: {summary.expired}")

            else:
                print("Invalid command. Type 'help' for usage.")

        except (ValueError, KeyError, InvalidOperation, OSError) as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            print("\nGoodbye!")
            break
        except EOFError:
            print("\nGoodbye!")
            break


if __name__ == "__main__":
    run_demo()
