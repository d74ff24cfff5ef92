"""Runtime configuration resolved from the environment.

Settings are read from `GROVE_*` environment variables and may be
overridden by pytest command-line options or CLI flags.
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from pytest_grove.models import SettingsModel


class GroveSettings(SettingsModel):
    """Settings controlling plugin loading and test selection."""

    model_config = SettingsConfigDict(
        env_prefix='GROVE_',
        frozen=True,
        extra='ignore',
    )

    strict: bool = Field(
        default=True,
        title='Strict mode',
        description=(
            'If true, any extension plugin loading issue is fatal. '
            'Otherwise issues are reported as warnings and loading continues.'
        ),
    )

    tags: frozenset[str] = Field(
        default_factory=frozenset,
        title='Included tags',
        description=(
            'When not empty, only tests carrying at least one of these tags '
            '(directly or through an enclosing group) are run.'
        ),
    )

    exclude_tags: frozenset[str] = Field(
        default_factory=frozenset,
        title='Excluded tags',
        description='Tests carrying any of these tags are not run.',
    )
