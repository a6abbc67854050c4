"""
Identidad: usuarios, roles, hashing de passwords, JWT de acceso y
limitador de intentos de login.

No re-exporta símbolos para evitar ciclos de import con el container.
"""
