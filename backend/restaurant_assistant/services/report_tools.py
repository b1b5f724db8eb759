"""
Report tools for the restaurant assistant.

A single tool, analyze_restaurant_data, through which the model declares
which report domains it needs (and for which period) and receives the data.
"""

from typing import Any
import logging

from pydantic import ValidationError

from restaurant_assistant.models import ToolAnalysisResult
from restaurant_assistant.services.prompts import ANALYZE_RESTAURANT_DATA_DESCRIPTION
from restaurant_assistant.services.report_client import ReportClient, report_client
from restaurant_assistant.services.tool_service import ToolCategory, ToolInputError, ToolService

logger = logging.getLogger(__name__)

ANALYZE_RESTAURANT_DATA = "analyze_restaurant_data"


def make_analyze_restaurant_data(client: ReportClient):
    """Build the tool executor around a report client."""

    async def analyze_restaurant_data(**tool_input: Any) -> str:
        try:
            analysis = ToolAnalysisResult.model_validate(tool_input)
        except ValidationError as e:
            raise ToolInputError(str(e)) from e

        logger.info(f"[TOOLS] analyze_restaurant_data selected: {analysis.selected_domains() or 'nothing'}")
        try:
            return await client.execute_analysis(analysis)
        except Exception as e:
            logger.exception("[TOOLS] Report analysis failed")
            return f"Error fetching API data: {e}"

    return analyze_restaurant_data


def register_report_tools(tool_service: ToolService, client: ReportClient = None) -> None:
    """
    Register report tools with the tool service.

    Args:
        tool_service: The ToolService instance to register with
        client: Report client to fetch through (defaults to the shared one)
    """
    tool_service.register_tool(
        name=ANALYZE_RESTAURANT_DATA,
        description=ANALYZE_RESTAURANT_DATA_DESCRIPTION,
        input_schema=ToolAnalysisResult.input_schema(),
        executor=make_analyze_restaurant_data(client or report_client),
        category=ToolCategory.REPORTS,
    )

    logger.info(f"Report tools registered: {ANALYZE_RESTAURANT_DATA}")
