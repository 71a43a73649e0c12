"""
HTTP 接口
"""
