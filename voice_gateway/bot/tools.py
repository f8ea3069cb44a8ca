"""
Local tools the realtime model may call.

Each tool is an async function taking a validated argument model and returning
its output text. The ToolRegistry looks tools up by name, validates the raw
JSON arguments, and wraps the outcome in a ToolResult so callers never see an
exception from a tool.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field, ValidationError

from voice_gateway.config.constants import DEFAULT_AGENT, GENERAL_AGENT, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

FAQ_BAGGAGE_ANSWER = "Можно взять одну сумку весом до 23 килограммов и размером 56 на 36 на 23 сантиметра."
FAQ_SEATS_ANSWER = "В самолёте 120 мест: 22 бизнес и 98 эконом. Аварийные выходы — в рядах 4 и 16."
FAQ_MEALS_ANSWER = "На борту подают горячее питание на рейсах более 3 часов. Напитки доступны всегда."
FAQ_UNKNOWN_ANSWER = "Извините, я не знаю ответа на этот вопрос."

FAQ_TOOL = "faq_lookup_tool"
TEMPERATURE_TOOL = "convert_temperature_tool"

# Agent label that answers while a tool is running
AGENT_FOR_TOOL: Dict[str, str] = {
    TEMPERATURE_TOOL: "Temperature Agent",
    FAQ_TOOL: DEFAULT_AGENT,
}


def agent_for_tool(tool_name: str) -> str:
    return AGENT_FOR_TOOL.get(tool_name, GENERAL_AGENT)


class ToolResult(BaseModel):
    """Outcome of a tool call: a result on success, an error otherwise."""

    success: bool
    result: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, result: str) -> "ToolResult":
        return cls(success=True, result=result)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


class FaqLookupArgs(BaseModel):
    question: str = Field(..., description="Вопрос пользователя")


class ConvertTemperatureArgs(BaseModel):
    value_celsius: float = Field(..., description="Температура в градусах Цельсия")


async def faq_lookup_tool(args: FaqLookupArgs) -> str:
    q = args.question.casefold()
    if "багаж" in q or "сумк" in q:
        return FAQ_BAGGAGE_ANSWER
    if "мест" in q or "самолет" in q:
        return FAQ_SEATS_ANSWER
    if "еда" in q or "питание" in q or "меню" in q:
        return FAQ_MEALS_ANSWER
    return FAQ_UNKNOWN_ANSWER


def _format_number(value: float) -> str:
    # 12.0 prints as "12", 12.5 as "12.5"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


async def convert_temperature_tool(args: ConvertTemperatureArgs) -> str:
    fahrenheit = args.value_celsius * 9 / 5 + 32
    # Ties round up: 1.25°C gives 34.3°F
    rounded = Decimal(repr(fahrenheit)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{_format_number(args.value_celsius)}°C = {rounded}°F"


ToolFunc = Callable[[Any], Awaitable[str]]


class Tool(BaseModel):
    name: str
    description: str
    args_model: Type[BaseModel]
    func: ToolFunc

    def definition(self) -> Dict[str, Any]:
        """JSON schema entry announced to the realtime model."""
        properties = {}
        for field_name, field in self.args_model.model_fields.items():
            annotation = field.annotation
            json_type = "number" if annotation in (int, float) else "string"
            properties[field_name] = {"type": json_type, "description": field.description or ""}
        required = [name for name, field in self.args_model.model_fields.items() if field.is_required()]
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        }


class ToolRegistry:
    """Named tools the session controller can execute."""

    def __init__(self):
        self.tools: Dict[str, Tool] = {}

    def register(self, name: str, func: ToolFunc, args_model: Type[BaseModel], description: str) -> None:
        self.tools[name] = Tool(name=name, description=description, args_model=args_model, func=func)

    def definitions(self) -> List[Dict[str, Any]]:
        return [tool.definition() for tool in self.tools.values()]

    async def execute(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        """
        Run a tool by name.

        Args:
            name: Registered tool name
            arguments: Decoded JSON arguments from the function call

        Returns:
            ToolResult: success with the output text, or failure with an error text
        """
        tool = self.tools.get(name)
        if tool is None:
            return ToolResult.fail(f"Unknown tool: {name}")

        try:
            args = tool.args_model.model_validate(arguments)
            return ToolResult.ok(await tool.func(args))
        except ValidationError as e:
            logger.warning(f"Invalid arguments for tool {name}: {e}")
            return ToolResult.fail(f"Invalid arguments: {e.errors()[0]['msg']}")
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return ToolResult.fail(str(e) or "Unknown error")


def create_default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        FAQ_TOOL,
        faq_lookup_tool,
        FaqLookupArgs,
        "Простейший поиск по часто задаваемым вопросам.",
    )
    registry.register(
        TEMPERATURE_TOOL,
        convert_temperature_tool,
        ConvertTemperatureArgs,
        "Конвертирует температуру из градусов Цельсия в Фаренгейты.",
    )
    return registry
