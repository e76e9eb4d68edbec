"""Target database connection configuration."""

from pydantic import BaseModel, ConfigDict, Field


class ConnectionConfig(BaseModel):
    """A logical connection with its access policy."""

    name: str = Field(..., description="Logical connection name")
    url: str = Field(..., description="Database URL used to build the connector")
    label: str = Field(default="", description="Human readable label")
    description: str = Field(default="", description="What lives in this database")
    allowed_tables: list[str] = Field(
        default_factory=list, description="Tables the agent may read (empty = all)"
    )
    denied_tables: list[str] = Field(
        default_factory=list, description="Tables the agent may never read"
    )
    hidden_columns: dict[str, list[str]] = Field(
        default_factory=dict, description="Columns removed from results, keyed by table"
    )

    model_config = ConfigDict(frozen=True)

    def display_label(self) -> str:
        return self.label or self.name
