"""
Imbalance Trader - Main Entry Point
===================================

Modes of operation:

1. SIMULATION: synthetic book and trades, paper executor, simulated
   exits so the risk manager sees wins and losses
2. LIVE: Binance websocket feeds, paper executor unless --real-orders
3. SNAPSHOT: one REST snapshot, one engine evaluation

Usage:
    python -m imbalance_trader.main --mode simulation --steps 2000
    python -m imbalance_trader.main --mode live --symbol ETHUSDT --duration 300
    python -m imbalance_trader.main --mode snapshot --symbol BTCUSDT

Environment:
    TRADER_PRESET, TRADER_SYMBOL, TRADER_EQUITY, TRADER_LOG_LEVEL
    BINANCE_API_KEY, BINANCE_API_SECRET (only for --real-orders)
"""

import argparse
import asyncio
import signal
from dataclasses import dataclass, replace
from typing import List, Optional

from .data import (
    AggTradeFeed,
    BinanceApiAdapter,
    DepthFeed,
    LatestValue,
    OrderBookSimulator,
)
from .engine import (
    MarketSnapshotBuilder,
    TradingEngineFactory,
    TradingSession,
    run_live_session,
)
from .execution import BinanceOrderExecutor, OrderSuccess, PaperOrderExecutor
from .infra import (
    ManualClock,
    StrategyConfig,
    StrategyPreset,
    SystemClock,
    SystemConfig,
    config_from_env,
    configure_logging,
    get_latency_stats,
    logger,
    LogCategory,
)
from .signals import TradeFlowAnalyzer


@dataclass
class SimulatedPosition:
    direction: int
    entry_price: float
    quantity: float
    entry_fee: float
    stop_loss: float
    take_profit: float
    opened_step: int


def _close_positions(
    positions: List[SimulatedPosition],
    mid: float,
    step: int,
    hold_steps: int,
    fee_pct: float,
) -> List[float]:
    """Exit positions that hit stop, target or max holding time; returns realized P&L per exit."""
    realized = []
    for position in list(positions):
        hit_stop = (mid <= position.stop_loss) if position.direction > 0 else (mid >= position.stop_loss)
        hit_target = (mid >= position.take_profit) if position.direction > 0 else (mid <= position.take_profit)
        if not (hit_stop or hit_target or step - position.opened_step >= hold_steps):
            continue
        gross = (mid - position.entry_price) * position.quantity * position.direction
        exit_fee = mid * position.quantity * fee_pct
        realized.append(gross - position.entry_fee - exit_fee)
        positions.remove(position)
    return realized


async def run_simulation_mode(config: SystemConfig, steps: int, seed: int, hold_steps: int) -> None:
    print("\n" + "=" * 60)
    print("IMBALANCE TRADER - SIMULATION MODE")
    print("=" * 60)
    print(f"Symbol: {config.market_data.symbol}  Steps: {steps}  Seed: {seed}")
    print("=" * 60 + "\n")

    simulator = OrderBookSimulator(symbol=config.market_data.symbol, seed=seed)
    clock = ManualClock(simulator.time_ms)
    strategy = config.strategy
    engine = TradingEngineFactory.create(
        strategy,
        config.starting_equity,
        order_executor=PaperOrderExecutor(
            symbol=config.market_data.symbol,
            slippage_pct=config.execution.paper_slippage_pct,
            fee_pct=config.execution.paper_fee_pct,
            clock=clock,
        ),
        clock=clock,
        symbol=config.market_data.symbol,
    )
    books = LatestValue()
    trades = LatestValue(())
    session = TradingSession(
        engine,
        config.market_data.symbol,
        books=books,
        trades=trades,
        snapshot_builder=MarketSnapshotBuilder(TradeFlowAnalyzer.from_config(strategy), clock),
        execution_timeout_s=config.execution.execution_timeout_s,
    )

    positions: List[SimulatedPosition] = []
    wins = losses = 0

    for step in range(steps):
        if shutdown_requested:
            break
        book, recent_trades = simulator.step()
        clock.set(simulator.time_ms)
        books.publish(book)
        trades.publish(recent_trades)

        for pnl in _close_positions(positions, book.mid_price, step, hold_steps, config.execution.paper_fee_pct):
            engine.risk_manager.record_trade(pnl)
            if pnl < 0:
                losses += 1
            else:
                wins += 1

        result = await session.process(book, recent_trades, timestamp_ms=simulator.time_ms)
        if isinstance(result, OrderSuccess):
            executor = engine.order_executor
            order = executor.orders[result.order_id] if isinstance(executor, PaperOrderExecutor) else None
            direction = 1 if order is None or order.side == "BUY" else -1
            positions.append(SimulatedPosition(
                direction=direction,
                entry_price=result.avg_fill_price,
                quantity=result.filled_quantity,
                entry_fee=result.fee,
                stop_loss=result.avg_fill_price * (0.99 if direction > 0 else 1.01),
                take_profit=result.avg_fill_price * (1.02 if direction > 0 else 0.98),
                opened_step=step,
            ))

        if (step + 1) % 250 == 0:
            status = engine.risk_manager.get_risk_status()
            print(f"\rStep {step + 1:,} | Orders: {session.stats.orders} | "
                  f"Equity: ${status.equity:,.2f} | Daily P&L: ${status.daily_pnl:,.2f}", end="")

    status = engine.risk_manager.get_risk_status()
    print("\n\n" + "=" * 60)
    print("SIMULATION SUMMARY")
    print("=" * 60)
    print(f"Cycles:          {session.stats.cycles:,}")
    print(f"Orders:          {session.stats.orders:,}")
    print(f"Closed trades:   {wins + losses} ({wins} wins / {losses} losses)")
    print(f"Open positions:  {len(positions)}")
    print(f"Equity:          ${status.equity:,.2f}")
    print(f"Daily P&L:       ${status.daily_pnl:,.2f} ({status.daily_loss_pct:.2%} loss)")
    print(f"Can trade:       {status.can_trade}")
    stats = get_latency_stats().get("strategy_evaluation")
    if stats:
        print(f"Eval latency:    p50 {stats['p50_ns'] / 1000:.1f}us  p99 {stats['p99_ns'] / 1000:.1f}us")
    print("=" * 60)


async def run_live_mode(config: SystemConfig, duration_seconds: int, real_orders: bool) -> None:
    print("\n" + "=" * 60)
    print("IMBALANCE TRADER - LIVE MODE")
    print("=" * 60)
    print(f"Symbol: {config.market_data.symbol}  Duration: {duration_seconds}s")
    print(f"Orders: {'REAL (Binance)' if real_orders else 'paper'}")
    print("=" * 60 + "\n")

    clock = SystemClock()
    symbol = config.market_data.symbol
    executor = None
    if real_orders:
        executor = BinanceOrderExecutor(symbol, config.execution, step_size=config.strategy.step_size)

    engine = TradingEngineFactory.create(
        config.strategy,
        config.starting_equity,
        order_executor=executor,
        clock=clock,
        symbol=symbol,
    )
    builder = MarketSnapshotBuilder(TradeFlowAnalyzer.from_config(config.strategy), clock)

    try:
        await asyncio.wait_for(
            run_live_session(
                engine,
                DepthFeed(config.market_data, clock),
                AggTradeFeed(config.market_data, clock),
                builder,
                execution_timeout_s=config.execution.execution_timeout_s,
            ),
            timeout=duration_seconds,
        )
    except asyncio.TimeoutError:
        logger.info("Live session duration reached", category=LogCategory.SYSTEM, symbol=symbol)
    finally:
        if executor is not None:
            await executor.aclose()

    status = engine.risk_manager.get_risk_status()
    print(f"\nEquity: ${status.equity:,.2f}  Daily P&L: ${status.daily_pnl:,.2f}")


async def run_snapshot_mode(config: SystemConfig) -> None:
    symbol = config.market_data.symbol
    adapter = BinanceApiAdapter(config.market_data)
    builder = MarketSnapshotBuilder(TradeFlowAnalyzer.from_config(config.strategy))
    engine = TradingEngineFactory.create(config.strategy, config.starting_equity, symbol=symbol)

    try:
        snapshot = await builder.build_from_api(symbol, adapter, depth_limit=config.market_data.depth_levels)
    finally:
        await adapter.aclose()

    if snapshot is None:
        print(f"Could not fetch a snapshot for {symbol}")
        return

    flow = snapshot.trade_flow
    print(f"{symbol}: bid {snapshot.best_bid} / ask {snapshot.best_ask} "
          f"(spread {snapshot.spread_pct:.4%})")
    print(f"Depth (top {config.strategy.top_n_levels}): bids ${snapshot.bid_depth(config.strategy.top_n_levels):,.0f} "
          f"asks ${snapshot.ask_depth(config.strategy.top_n_levels):,.0f}")
    print(f"Trade flow: {flow.sample_count} trades, buy/sell {flow.buy_pressure_ratio:.2f} "
          f"sell/buy {flow.sell_pressure_ratio:.2f}")

    result = await engine.on_market_update(snapshot)
    print(f"Engine decision: {result if result is not None else 'no trade'}")


shutdown_requested = False


def signal_handler(signum, frame):
    global shutdown_requested
    shutdown_requested = True
    print("\nShutdown requested, finishing current step...")


def build_config(args: argparse.Namespace) -> SystemConfig:
    config = config_from_env()
    if args.preset:
        config = replace(config, strategy=StrategyConfig.from_preset(StrategyPreset(args.preset)))
    if args.symbol:
        config = replace(config, market_data=replace(config.market_data, symbol=args.symbol.upper()))
    if args.equity is not None:
        config = replace(config, starting_equity=args.equity)
    if args.log_level:
        config = replace(config, log_level=args.log_level.upper())
    if args.log_file:
        config = replace(config, log_to_file=True, log_file_path=args.log_file)
    return config


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Order book imbalance trader",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m imbalance_trader.main --mode simulation --steps 2000 --preset aggressive
  python -m imbalance_trader.main --mode live --symbol ETHUSDT --duration 300
  python -m imbalance_trader.main --mode snapshot --symbol BTCUSDT
        """
    )
    parser.add_argument("--mode", choices=["simulation", "live", "snapshot"], default="simulation",
                        help="Operating mode (default: simulation)")
    parser.add_argument("--symbol", type=str, default=None, help="Exchange symbol, e.g. BTCUSDT")
    parser.add_argument("--preset", choices=[p.value for p in StrategyPreset], default=None,
                        help="Strategy preset")
    parser.add_argument("--equity", type=float, default=None, help="Starting equity in quote currency")
    parser.add_argument("--steps", type=int, default=2000, help="Simulation steps (default: 2000)")
    parser.add_argument("--hold-steps", type=int, default=40,
                        help="Max steps a simulated position is held (default: 40)")
    parser.add_argument("--duration", type=int, default=60, help="Live duration in seconds (default: 60)")
    parser.add_argument("--seed", type=int, default=42, help="Simulation seed (default: 42)")
    parser.add_argument("--real-orders", action="store_true",
                        help="Send live orders to Binance (requires API credentials)")
    parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--log-file", type=str, default=None, help="Write JSON logs to this file")

    args = parser.parse_args(argv)
    config = build_config(args)
    configure_logging(config.log_level, config.log_file_path if config.log_to_file else None)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if args.mode == "simulation":
        asyncio.run(run_simulation_mode(config, args.steps, args.seed, args.hold_steps))
    elif args.mode == "live":
        if args.real_orders and not config.execution.has_credentials:
            parser.error("--real-orders requires BINANCE_API_KEY and BINANCE_API_SECRET")
        asyncio.run(run_live_mode(config, args.duration, args.real_orders))
    elif args.mode == "snapshot":
        asyncio.run(run_snapshot_mode(config))


if __name__ == "__main__":
    main()
