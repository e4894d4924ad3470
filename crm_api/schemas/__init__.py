from .cliente import (
    Cliente,
    ClienteCreate,
    ClienteFiltros,
    ClienteList,
    ClienteUpdate,
    Paginacao,
    PaginationMeta,
)
