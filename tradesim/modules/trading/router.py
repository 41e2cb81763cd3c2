"""
Trading Router

API endpoints for trade execution, closing and reporting.
No authentication - single simulated portfolio per process.

Author: Tradesim Team
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from tradesim.config.settings import Settings
from tradesim.core.dependencies import get_app_settings, get_trading_engine
from tradesim.core.responses import error_json_response, exception_json_response, success_response
from tradesim.modules.trading.schemas import CloseTradeRequest, TradeExecutionRequest
from tradesim.services.trading_engine import TradingEngine
from tradesim.shared.exceptions import AppException, PositionNotFoundError
from tradesim.core.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/trading", tags=["Trading"])


# ==================== EXECUTE ====================

@router.post(
    "/execute",
    status_code=status.HTTP_200_OK,
    response_description="Trade execution attempted"
)
async def execute_trade(
    trade_request: TradeExecutionRequest,
    engine: TradingEngine = Depends(get_trading_engine)
):
    """
    Execute a simulated trade.

    Business rejections (insufficient balance, unknown symbol, non-positive
    amount) are returned with HTTP 200 and data.status == "failed".
    """
    try:
        result = await engine.execute_trade(trade_request)

        return success_response(
            status_code=status.HTTP_200_OK,
            message="Trade executed" if result.success else "Trade failed",
            data=result.to_response()
        )

    except AppException as e:
        logger.error(f"Error executing trade: {e.message}")
        return exception_json_response(e, "Trade execution failed")
    except Exception as e:
        logger.error(f"Unexpected error executing trade: {str(e)}", exc_info=True)
        return error_json_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Trade execution failed",
            error_code="INTERNAL_SERVER_ERROR",
            error_message="An unexpected error occurred"
        )


@router.get(
    "/execute",
    status_code=status.HTTP_200_OK,
    response_description="Portfolio status retrieved"
)
async def get_portfolio(engine: TradingEngine = Depends(get_trading_engine)):
    """Balances, tradable pairs, prices and fee rate."""
    try:
        portfolio = await engine.portfolio()

        return success_response(
            status_code=status.HTTP_200_OK,
            message="Portfolio retrieved successfully",
            data=portfolio
        )

    except Exception as e:
        logger.error(f"Error getting portfolio: {str(e)}", exc_info=True)
        return error_json_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Failed to get portfolio status",
            error_code="INTERNAL_SERVER_ERROR",
            error_message="An unexpected error occurred"
        )


# ==================== CLOSE ====================

@router.post(
    "/close",
    status_code=status.HTTP_200_OK,
    response_description="Trade closed"
)
async def close_trade(
    close_request: CloseTradeRequest,
    engine: TradingEngine = Depends(get_trading_engine)
):
    """Close an open trade manually."""
    try:
        result = await engine.close_trade(
            close_request.trade_id,
            close_request.reason,
            close_price=close_request.close_price
        )

        return success_response(
            status_code=status.HTTP_200_OK,
            message="Trade closed successfully",
            data=result.to_response()
        )

    except PositionNotFoundError as e:
        logger.warning(f"Close rejected for {close_request.trade_id}: {e.message}")
        return exception_json_response(e, "Trade close failed")
    except AppException as e:
        logger.error(f"Error closing trade {close_request.trade_id}: {e.message}")
        return exception_json_response(e, "Trade close failed")
    except Exception as e:
        logger.error(f"Unexpected error closing trade: {str(e)}", exc_info=True)
        return error_json_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Trade close failed",
            error_code="INTERNAL_SERVER_ERROR",
            error_message="An unexpected error occurred"
        )


@router.get(
    "/close",
    status_code=status.HTTP_200_OK,
    response_description="Sweep performed and status retrieved"
)
async def sweep_and_status(
    engine: TradingEngine = Depends(get_trading_engine),
    settings: Settings = Depends(get_app_settings)
):
    """
    Run one auto-close sweep, then report open positions, recent history
    and balances.
    """
    try:
        auto_closed = await engine.run_sweep()
        data = await engine.status(history_limit=settings.HISTORY_RESPONSE_LIMIT)
        data["auto_closed"] = [result.to_response() for result in auto_closed]

        return success_response(
            status_code=status.HTTP_200_OK,
            message="Trade status retrieved successfully",
            data=data
        )

    except Exception as e:
        logger.error(f"Error getting trade status: {str(e)}", exc_info=True)
        return error_json_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Failed to get trade status",
            error_code="INTERNAL_SERVER_ERROR",
            error_message="An unexpected error occurred"
        )


# ==================== HISTORY ====================

@router.get(
    "/history",
    status_code=status.HTTP_200_OK,
    response_description="Trade history retrieved"
)
async def get_trade_history(
    limit: Optional[int] = Query(None, ge=1, le=5000, description="Last N closed trades"),
    window_hours: Optional[float] = Query(None, gt=0, description="Only trades closed within this many hours"),
    engine: TradingEngine = Depends(get_trading_engine)
):
    """Closed trades with a reporting summary."""
    try:
        history = engine.trade_history(limit=limit, window_hours=window_hours)

        return success_response(
            status_code=status.HTTP_200_OK,
            message="Trade history retrieved successfully",
            data=history
        )

    except Exception as e:
        logger.error(f"Error getting trade history: {str(e)}", exc_info=True)
        return error_json_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Failed to get trade history",
            error_code="INTERNAL_SERVER_ERROR",
            error_message="An unexpected error occurred"
        )
