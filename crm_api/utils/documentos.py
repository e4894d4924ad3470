"""
Validação e formatação de documentos brasileiros (CPF e CNPJ).

Os validadores recebem o documento já sem formatação e nunca levantam
exceção: qualquer entrada fora do formato esperado simplesmente é inválida.
O cálculo dos dígitos verificadores fica com o validate-docbr.
"""
import re
from typing import Tuple

from validate_docbr import CNPJ, CPF

_NAO_DIGITOS = re.compile(r"\D", re.ASCII)
_EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_CPF = CPF()
_CNPJ = CNPJ()


def limpar_documento(documento: str) -> str:
    """Remove formatação do documento, deixando apenas números"""
    if not documento:
        return ""
    return _NAO_DIGITOS.sub("", documento)


def _formato_valido(documento: str, tamanho: int) -> bool:
    # a biblioteca remove a máscara sozinha; aqui só entram dígitos puros
    if not isinstance(documento, str) or len(documento) != tamanho:
        return False
    if not (documento.isascii() and documento.isdigit()):
        return False
    # 111.111.111-11 e afins passam no cálculo mas não são válidos
    return len(set(documento)) > 1


def is_valid_cpf(cpf: str) -> bool:
    return _formato_valido(cpf, 11) and _CPF.validate(cpf)


def is_valid_cnpj(cnpj: str) -> bool:
    return _formato_valido(cnpj, 14) and _CNPJ.validate(cnpj)


def is_valid_email(email: str) -> bool:
    return bool(email) and _EMAIL_REGEX.match(email) is not None


def formatar_cpf(cpf: str) -> str:
    """Formata um CPF para o padrão XXX.XXX.XXX-XX"""
    limpo = limpar_documento(cpf)
    if len(limpo) != 11:
        return cpf  # Retorna o original se não tiver 11 dígitos

    return _CPF.mask(limpo)


def formatar_cnpj(cnpj: str) -> str:
    """Formata um CNPJ para o padrão XX.XXX.XXX/XXXX-XX"""
    limpo = limpar_documento(cnpj)
    if len(limpo) != 14:
        return cnpj

    return _CNPJ.mask(limpo)


def validar_documento(documento: str) -> Tuple[bool, str]:
    """
    Detecta o tipo do documento pelo número de dígitos e valida.

    Retorna (valido, tipo) onde tipo é "CPF", "CNPJ" ou "UNKNOWN".
    """
    limpo = limpar_documento(documento)
    if len(limpo) == 11:
        return is_valid_cpf(limpo), "CPF"
    if len(limpo) == 14:
        return is_valid_cnpj(limpo), "CNPJ"
    return False, "UNKNOWN"
