"""
Provider Registry - ordered tier lists per input class.

Enables swapping or reordering lookup tiers without touching the resolver.
"""

from typing import Any, Callable, Dict, List, Optional

from ..config import Config
from ..models import InputType
from .base import BaseProvider
from .dictionary import PrimaryDictionaryProvider, SecondaryDictionaryProvider
from .translation import LLMFallbackProvider, TranslationOnlyProvider

ProviderFactory = Callable[..., BaseProvider]


class ProviderRegistry:
    """
    Registry of lookup tiers using the Strategy pattern.

    Allows:
    - Registration of extra providers under a tag
    - Per-input-class tier order
    - One shared instance per tag across tier lists

    Usage:
        @ProviderRegistry.register("my-dictionary")
        def make_my_dictionary(**context):
            return MyDictionaryProvider(timeout=context["timeout"])

        tiers = ProviderRegistry.build_tiers(translation_service=service)
    """

    # Registry: {tag: factory(**context) -> provider}
    _factories: Dict[str, ProviderFactory] = {}

    DEFAULT_ORDER: Dict[InputType, List[str]] = {
        InputType.WORD: ["primary", "secondary", "translation-only", "llm"],
        InputType.PHRASE: ["secondary", "primary", "translation-only", "llm"],
    }

    @classmethod
    def register(cls, tag: str):
        """
        Decorator to register a provider factory.

        Args:
            tag: Provider tag used in tier orders

        Returns:
            Decorator function
        """
        def decorator(factory: ProviderFactory) -> ProviderFactory:
            cls._factories[tag] = factory
            return factory
        return decorator

    @classmethod
    def create(cls, tag: str, **context: Any) -> BaseProvider:
        """
        Create a provider instance.

        Raises:
            ValueError: If no provider is registered under the tag
        """
        if tag not in cls._factories:
            raise ValueError(
                f"Unknown lookup provider: {tag}. Available: {list(cls._factories)}"
            )
        return cls._factories[tag](**context)

    @classmethod
    def get_available_providers(cls) -> List[str]:
        return list(cls._factories.keys())

    @classmethod
    def build_tiers(
        cls,
        order: Optional[Dict[InputType, List[str]]] = None,
        timeout: int = Config.TIMEOUT,
        **context: Any,
    ) -> Dict[InputType, List[BaseProvider]]:
        """
        Instantiate the tier lists.

        Args:
            order: Tag order per input class (DEFAULT_ORDER if None)
            timeout: Per-request timeout in seconds
            **context: Extra factory arguments (e.g. translation_service)

        Returns:
            {input_type: [provider, ...]} with shared instances per tag
        """
        order = order or cls.DEFAULT_ORDER
        instances: Dict[str, BaseProvider] = {}
        tiers: Dict[InputType, List[BaseProvider]] = {}
        for input_type, tags in order.items():
            tiers[input_type] = []
            for tag in tags:
                if tag not in instances:
                    instances[tag] = cls.create(tag, timeout=timeout, **context)
                tiers[input_type].append(instances[tag])
        return tiers


@ProviderRegistry.register("primary")
def _make_primary(timeout: int = Config.TIMEOUT, **_: Any) -> BaseProvider:
    return PrimaryDictionaryProvider(timeout=timeout)


@ProviderRegistry.register("secondary")
def _make_secondary(timeout: int = Config.TIMEOUT, **_: Any) -> BaseProvider:
    return SecondaryDictionaryProvider(timeout=timeout)


@ProviderRegistry.register("translation-only")
def _make_translation_only(**_: Any) -> BaseProvider:
    return TranslationOnlyProvider()


@ProviderRegistry.register("llm")
def _make_llm(translation_service=None, **_: Any) -> BaseProvider:
    if translation_service is None:
        raise ValueError("The llm tier needs a translation_service")
    return LLMFallbackProvider(translation_service)
