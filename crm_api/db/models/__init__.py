from .cliente import Cliente, TipoCliente
