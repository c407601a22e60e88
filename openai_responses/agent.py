"""
Function calling loop - run the model's function calls and feed the results back
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .client import ResponsesClient, default_client
from .errors import ResponsesError
from .schema import build_function
from .types import FunctionCall, Response, Result, function_output

log = logging.getLogger(__name__)

FunctionTable = Mapping[Any, Callable[[Dict[str, Any]], Any]]


def _resolve_functions(functions: FunctionTable) -> Dict[str, Any]:
    # Keys may be Enum members or other objects; look everything up by string.
    table = {}
    for key, fn in functions.items():
        name = getattr(key, "value", key)
        table[str(name)] = fn
    return table


def _as_call(call: Union[FunctionCall, Mapping[str, Any]]) -> FunctionCall:
    if isinstance(call, FunctionCall):
        return call
    return FunctionCall(
        name=call.get("name"),
        call_id=call.get("call_id"),
        arguments=call.get("arguments") or {},
    )


def call_functions(
    function_calls: Sequence[Union[FunctionCall, Mapping[str, Any]]],
    functions: FunctionTable,
) -> List[Dict[str, Any]]:
    """
    Execute function calls and format the results as input items.

    Each function receives the decoded arguments dict. A missing function,
    a non-callable entry or an exception raised by the function becomes an
    error string in that call's output; nothing is raised.

        outputs = call_functions(response.function_calls, {
            "get_weather": lambda args: {"temperature": 22, "city": args["city"]},
        })
        client.follow_up(response, input=outputs)
    """
    table = _resolve_functions(functions)
    outputs = []
    for call in map(_as_call, function_calls):
        fn = table.get(str(call.name))
        if fn is None:
            log.warning(f"Function not found: {call.name}")
            result = f"Error: Function '{call.name}' not found"
        elif not callable(fn):
            result = f"Error: Invalid function for '{call.name}'"
        else:
            try:
                result = fn(call.arguments)
                log.info(f"Function {call.name} returned: {str(result)[:100]}")
            except Exception as e:
                log.error(f"Function {call.name} raised: {e}")
                result = f"Error calling function '{call.name}': {e}"
        outputs.append(function_output(call.call_id, result).to_dict())
    return outputs


class ToolRegistry:
    """
    Registry of callable tools.

    Parameters use the schema DSL, so tool definitions are always strict:

        registry = ToolRegistry()
        registry.register(
            "get_weather",
            "Get the current weather for a city",
            {"city": "string"},
            lambda city: {"temperature": 22, "city": city},
        )
        run({"input": "Weather in Paris?", "tools": registry.tools()}, registry.functions())

    Handlers are called with the arguments as keyword arguments.
    """

    def __init__(self):
        self._tools: List[Dict[str, Any]] = []
        self.handlers: Dict[str, Callable] = {}

    def register(self, name: str, description: str, parameters: Any, handler: Callable):
        """Register a tool the model can call."""
        if name in self.handlers:
            raise ValueError(f"Tool already registered: {name}")
        self._tools.append(build_function(name, description, parameters))
        self.handlers[name] = handler

    def execute(self, name: str, arguments: Dict[str, Any]) -> Any:
        if name not in self.handlers:
            raise ValueError(f"Unknown tool: {name}")
        return self.handlers[name](**arguments)

    def tools(self) -> List[Dict[str, Any]]:
        """Tool definitions for the `tools` request option."""
        return list(self._tools)

    def functions(self) -> Dict[str, Callable[[Dict[str, Any]], Any]]:
        """Function table for call_functions()/run()."""
        return {name: self._bind(name) for name in self.handlers}

    def _bind(self, name: str) -> Callable[[Dict[str, Any]], Any]:
        return lambda arguments: self.execute(name, arguments)


class FunctionCallLoop:
    """
    Drives a conversation until the model stops asking for function calls.

    Each round sends the options, runs any requested functions, then sends
    their outputs as a follow-up to the response that asked for them. The
    loop ends at the first response without function calls and returns
    every response, oldest first. If a request fails the whole run fails
    and the responses collected so far are dropped.

    on_tool_call(name, arguments, output) is called after each function
    runs; errors it raises are logged and ignored.
    """

    def __init__(
        self,
        client: ResponsesClient,
        functions: Union[ToolRegistry, FunctionTable],
        max_iterations: Optional[int] = None,
        on_tool_call: Optional[Callable[[str, Dict[str, Any], str], None]] = None,
    ):
        if isinstance(functions, ToolRegistry):
            functions = functions.functions()
        self.client = client
        self.functions = _resolve_functions(functions)
        self.max_iterations = max_iterations
        self.on_tool_call = on_tool_call

    def run(self, options: Mapping[str, Any]) -> Result[List[Response]]:
        options = dict(options)
        # Everything except the conversation input carries over to follow-ups.
        carried = {k: v for k, v in options.items() if k not in ("input", "previous_response_id", "stream")}

        result = self.client.create(**options)
        responses: List[Response] = []
        iteration = 0
        while True:
            if not result.ok:
                log.error(f"Function call loop aborted: {result.error}")
                return Result.failure(result.error)
            response = result.value
            responses.append(response)

            if not response.function_calls:
                log.info(f"Function call loop complete after {len(responses)} response(s)")
                return Result.success(responses)

            iteration += 1
            if self.max_iterations is not None and iteration > self.max_iterations:
                log.warning(f"Function call loop hit max iterations ({self.max_iterations})")
                return Result.failure(ResponsesError(
                    f"Function calling did not finish within {self.max_iterations} iterations",
                    code="max_iterations",
                    details={"responses": len(responses)},
                ))

            log.info(f"Iteration {iteration}: {len(response.function_calls)} function call(s)")
            outputs = call_functions(response.function_calls, self.functions)
            self._notify(response.function_calls, outputs)
            result = self.client.follow_up(response, **{**carried, "input": outputs})

    def _notify(self, calls: List[FunctionCall], outputs: List[Dict[str, Any]]):
        if not self.on_tool_call:
            return
        for call, output in zip(calls, outputs):
            try:
                self.on_tool_call(call.name, call.arguments, output["output"])
            except Exception as e:
                log.debug(f"on_tool_call callback error: {e}")


def run(
    options: Mapping[str, Any],
    functions: Union[ToolRegistry, FunctionTable],
    max_iterations: Optional[int] = None,
    client: Optional[ResponsesClient] = None,
) -> Result[List[Response]]:
    """
    Run a conversation with automatic function calling.

        result = run(
            {"input": "What's the weather in Paris?", "tools": [weather_tool]},
            {"get_weather": lambda args: {"temperature": 22}},
        )
        final = result.unwrap()[-1]
        print(final.text)

    Returns every response in order; the last one has no function calls.
    """
    loop = FunctionCallLoop(client or default_client(), functions, max_iterations=max_iterations)
    return loop.run(options)


def run_or_raise(
    options: Mapping[str, Any],
    functions: Union[ToolRegistry, FunctionTable],
    max_iterations: Optional[int] = None,
    client: Optional[ResponsesClient] = None,
) -> List[Response]:
    return run(options, functions, max_iterations=max_iterations, client=client).unwrap()
