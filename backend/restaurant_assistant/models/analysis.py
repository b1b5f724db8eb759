"""
Input contract of the data analysis tool.

The model fills this structure on the forced first step, deciding which
report domains are needed to answer the manager's question and for which
time period.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

REPORT_DOMAINS = ("campaign", "menu", "orders", "consumers", "feedbacks", "store")

TimeFilterType = Literal["1d", "7d", "30d", "all", "custom"]


class DomainDecision(BaseModel):
    why: str = Field(description="The reason for using or not using the API")
    use: bool = Field(description="Whether the API should be used to answer the question")


class TimeFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: TimeFilterType = Field(
        description=(
            "Time filter type: 1d (last day), 7d (last 7 days), 30d (last 30 days), "
            "all (all time), custom (specific date range)"
        )
    )
    start_date: Optional[str] = Field(
        default=None,
        alias="startDate",
        description="Start date in ISO format (YYYY-MM-DDTHH:mm:ss.sssZ) - only for custom type",
    )
    end_date: Optional[str] = Field(
        default=None,
        alias="endDate",
        description="End date in ISO format (YYYY-MM-DDTHH:mm:ss.sssZ) - only for custom type",
    )


class ToolAnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    campaign: DomainDecision
    menu: DomainDecision
    orders: DomainDecision
    consumers: DomainDecision
    feedbacks: DomainDecision
    store: DomainDecision
    time_filter: Optional[TimeFilter] = Field(
        default=None,
        alias="timeFilter",
        description=(
            "Time period filter to apply to API requests. Extract from user question if they "
            'mention time periods like "last 30 days", "this week", "last month", etc.'
        ),
    )

    def selected_domains(self) -> List[str]:
        """Domains flagged use=true, in catalogue order."""
        return [domain for domain in REPORT_DOMAINS if getattr(self, domain).use]

    @classmethod
    def input_schema(cls) -> dict:
        """JSON schema handed to the model as the tool's input schema, $refs inlined."""
        schema = cls.model_json_schema(by_alias=True)
        definitions = schema.pop("$defs", {})
        return _inline_refs(schema, definitions)


def _inline_refs(node: Any, definitions: Dict[str, Any]) -> Any:
    if isinstance(node, list):
        return [_inline_refs(item, definitions) for item in node]
    if not isinstance(node, dict):
        return node
    if "$ref" in node:
        target = definitions[node["$ref"].rsplit("/", 1)[-1]]
        merged = {**target, **{k: v for k, v in node.items() if k != "$ref"}}
        return _inline_refs(merged, definitions)
    return {key: _inline_refs(value, definitions) for key, value in node.items()}
