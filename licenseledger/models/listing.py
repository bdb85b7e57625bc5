"""
Listing Model
=============

A provider's priced service entry. Ids come from the ``listing`` counter in
``ledger_counters`` and are never reused; rows are updated in place and
never deleted.
"""

from typing import Optional

from sqlmodel import Column, Field, SQLModel, Text

from licenseledger.models.types import BigUint


class Listing(SQLModel, table=True):
    __tablename__ = "listings"

    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    owner: str = Field(index=True, max_length=128)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default="", sa_column=Column(Text, default=""))
    url: str = Field(default="", max_length=2048)
    price_usd_per_period: int = Field(sa_column=Column(BigUint, nullable=False))
    created_at: int = Field(default=0)
    updated_at: int = Field(default=0)
