import json
from invokeai.invocation_api import (
    BaseInvocation,
    BaseInvocationOutput,
    InvocationContext,
    invocation,
    invocation_output,
    InputField,
    OutputField,
    UIComponent
)

from stochgram import Generator, parse_grammar

@invocation_output("stochgram_output")
class StochgramOutput(BaseInvocationOutput):
    """Output for the Stochastic Grammar node, including the state map."""
    prompt: str = OutputField(description="The generated tokens joined by spaces")
    states: str = OutputField(description="JSON string of the states set during generation")


@invocation("stochgram_generate", title="Stochastic Grammar", tags=["prompt", "grammar", "generator", "text"], category="prompt", version="1.0.0")
class StochgramInvocation(BaseInvocation):
    """Generates a prompt from weighted and conditional grammar rules."""

    grammar: str = InputField(default="", description="The rules text", ui_component=UIComponent.Textarea)
    start_rules: str = InputField(default="", description="Comma-separated rules to expand (blank = first rule)")
    seed: int = InputField(default=0, description="Seed for randomness")

    def invoke(self, context: InvocationContext) -> StochgramOutput:
        rules = parse_grammar(self.grammar, name="invokeai")
        start = [s.strip() for s in self.start_rules.split(',') if s.strip()]
        result = Generator(rules, seed=self.seed).generate(*start)

        states_json = json.dumps(result.states, indent=2)

        return StochgramOutput(prompt=result.text, states=states_json)
