from pydantic import BaseModel


class OutletOut(BaseModel):
    slug: str
    code: str
    name: str
    outlet_type: str
    location: str
    status_vocabulary: list[str]


class OutletListOut(BaseModel):
    items: list[OutletOut]
